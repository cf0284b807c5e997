"""KCP support: connection statistics counters and a deadline-based task scheduler."""