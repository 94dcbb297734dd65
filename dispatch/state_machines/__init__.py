#Pure transition functions for rides and drivers. No store access.
