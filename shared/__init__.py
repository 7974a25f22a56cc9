"""
Shared configuration and infrastructure for the relay services.
"""
