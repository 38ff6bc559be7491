"""Source scanner — lexical rule matching, aggregation and the scan engine."""
