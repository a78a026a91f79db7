"""Debounced mood analysis queue"""
