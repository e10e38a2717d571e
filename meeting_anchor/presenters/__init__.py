"""Presenters package for Meeting Anchor application.

This package contains the reminder scheduler and the presenter classes
that coordinate between models and views following the MVP
(Model-View-Presenter) architecture pattern.
"""
