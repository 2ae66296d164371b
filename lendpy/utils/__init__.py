"""Utility functions for the lending engine"""
