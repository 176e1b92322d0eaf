"""Core domain logic for school health campaigns.

This package contains the event lifecycle, consent collection and checkup
recording services, isolated from the portal UI and the REST backend for
easy testing and reasoning.
"""
