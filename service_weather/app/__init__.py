"""
Weather gateway application package.

Request flow: rate limiter -> key store -> location resolution ->
response cache -> upstream provider.
"""
