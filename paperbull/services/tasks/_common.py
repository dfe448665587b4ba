"""Shared helpers for Celery tasks."""

import asyncio


def run_async(coro):
    """Run an async coroutine from a synchronous Celery task context.

    asyncio.run() creates a fresh event loop per call, so httpx clients
    never outlive the loop they were created on.
    """
    return asyncio.run(coro)
