"""
Integration tests for search-client.

Test the full stack together (façade, dispatcher, httpx requester) against
httpx.MockTransport; no network access is needed.
"""
