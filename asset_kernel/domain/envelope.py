"""Result envelopes for the request layer that wraps the kernel."""

from __future__ import annotations

from typing import Any

from asset_kernel.exceptions import AssetKernelError

SUCCESS = "SUCCESS"


def success_envelope(entity_id: Any, data: dict[str, Any]) -> dict[str, Any]:
    """``{id, status: "SUCCESS", data}``"""
    return {"id": str(entity_id), "status": SUCCESS, "data": data}


def error_envelope(exc: AssetKernelError) -> dict[str, Any]:
    """``{error, code, details?}``; details only when the error carries violations."""
    envelope = exc.to_dict()
    if not envelope.get("details"):
        envelope.pop("details", None)
    return envelope
