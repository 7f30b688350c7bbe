# State = what must hold while a turn is in flight.

# At most one turn per session runs at a time: two concurrent turns would both
# read the same history and the later save would drop the earlier turn.

# Distinct sessions never share state and run in parallel.
