"""Composable DNS resolvers: routing, round-robin groups, query and response modifiers, rate limiting, logging and a pipelined client."""

__version__ = "0.1.0"