"""Per-message processing pipeline: policy gates, AI reply, routing, send."""
