"""Core building blocks shared by the relay: authentication and authorization."""
