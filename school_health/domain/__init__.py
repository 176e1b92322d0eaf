"""Domain models and rules for school health campaigns.

Kept free of I/O so the rules can be tested and reused wherever the
event/consent logic runs.
"""
