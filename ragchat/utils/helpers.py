"""
Utility helper functions.
"""
from typing import Any, Dict, List


def dedupe_sources(invocations: List[Dict[str, Any]]) -> List[Dict]:
    """
    Collapse the passages returned by all retrieval tool calls into one entry
    per source file.

    For each file, keeps the best similarity score and a preview of that
    passage. Sorted by score, best first.

    Args:
        invocations: Canonical tool invocation records

    Returns:
        List of {source, score, preview}

    Example:
        >>> dedupe_sources([{"result": {"results": [
        ...     {"source": "a.pdf", "similarityScore": 80.0, "content": "Long text"},
        ...     {"source": "a.pdf", "similarityScore": 60.0, "content": "Other"},
        ...     {"source": "b.md", "similarityScore": 70.0, "content": "More"}]}}])
        [{'source': 'a.pdf', 'score': 80.0, 'preview': 'Long text'}, {'source': 'b.md', 'score': 70.0, 'preview': 'More'}]
    """
    source_map = {}

    for invocation in invocations:
        result = invocation.get("result") or {}
        if not isinstance(result, dict):
            continue
        for hit in result.get("results") or []:
            source = hit.get("source")
            score = float(hit.get("similarityScore") or 0)
            if source not in source_map or score > source_map[source]["score"]:
                source_map[source] = {"score": score, "content": hit.get("content") or ""}

    sources = []
    for name, data in sorted(source_map.items(), key=lambda x: x[1]["score"], reverse=True):
        preview = data["content"][:200].strip()
        if len(data["content"]) > 200:
            preview += "..."
        sources.append({"source": name, "score": data["score"], "preview": preview})

    return sources
