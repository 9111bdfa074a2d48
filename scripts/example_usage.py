#!/usr/bin/env python3
"""Example script for using the chunk retrieval pipeline.

Requires MVDB_ENDPOINT and MVDB_ACCESS_TOKEN in the environment or a .env file.
"""

import asyncio

from chunk_retrieval.core import setup_logging
from chunk_retrieval.core.dependencies import get_retrieval_service
from chunk_retrieval.core.exceptions import RetrievalError


async def main():
    """Run example usage."""
    print("Chunk Retrieval Example Usage\n" + "=" * 50)
    setup_logging()

    service = None
    try:
        service = get_retrieval_service()

        # Example 1: Basic retrieval
        print("\n1. Retrieving chunks for a section...")
        params = {
            "sectionId": "section-intro",
            "query": "What is the refund policy for annual plans?",
            "k": 5,
            "min_score": 0.6,
        }
        result = await service.retrieve(params)
        print(f"✓ Retrieved {result.total_retrieved} chunks (recall={result.recall_score})")
        for chunk in result.chunks:
            print(f"  [{chunk.score:.2f}] {chunk.text[:80]}...")
        for warning in result.warnings:
            print(f"  ! {warning.type}: {warning.message}")

        # Example 2: Same request again is served from cache
        print("\n2. Repeating the request...")
        again = await service.retrieve(params)
        print(f"✓ Cached: {again.cached} (age {again.cache_age_seconds}s)")

        # Example 3: Filtered retrieval
        print("\n3. Retrieving with filters...")
        filtered = await service.retrieve(
            {
                **params,
                "filters": {
                    "post_type": ["post", "page"],
                    "license": ["CC-BY", "commercial"],
                    "date_range": {"start": "2024-01-01"},
                },
            }
        )
        print(f"✓ Retrieved {filtered.total_retrieved} filtered chunks")
        print(f"  Stages passed: {', '.join(filtered.metadata.filter_stages_passed)}")

        # Example 4: Cache statistics
        print("\n4. Cache statistics...")
        stats = service.get_cache_stats()
        print(f"✓ Hit rate: {stats['hit_rate_percent']}% over {stats['total_requests']} lookups")
        for recommendation in stats["recommendations"]:
            print(f"  - {recommendation}")

        print("\n" + "=" * 50)
        print("Example completed successfully!")

    except RetrievalError as e:
        print(f"\n✗ Error ({e.category}): {e.message}")

    finally:
        if service is not None:
            await service.close()


if __name__ == "__main__":
    asyncio.run(main())
