"""Probabilistic delivery forecasting.

This package provides:
- Ticket target calculation (backlog position plus bug/discovery growth)
- Bootstrap simulation over historical throughput
- Confidence-thresholded prediction reports

Everything here is a pure function of its inputs. Configuration and issue
tracker access live in `probabilistic_forecast.config` and
`probabilistic_forecast.adapters`.
"""
