"""Service-worker side of the push subscription lifecycle.

Everything here runs against an abstract push platform (the browser's
Notification and PushManager APIs) and talks to the backend over HTTP.
"""
