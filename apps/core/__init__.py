"""
Shared infrastructure: base models, exceptions, permissions, logging and email.
"""
