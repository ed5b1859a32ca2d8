"""Logging, events, metrics and error tracking helpers"""
