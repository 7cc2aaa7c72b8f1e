"""Chain support policy and chain state access."""
