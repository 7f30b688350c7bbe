# This module assembles the context of a conversation turn

# +---------------------+     +---------------------+
# |   History Store     |     | Knowledge Retriever |   (Persistent / startup-built)
# |---------------------|     |---------------------|
# | Turns per session   |     | Corpus embeddings   |
# | Compacted summaries |     | Top-K similarity    |
# +---------------------+     +---------------------+
#            \                        /
#             \                      /
#              v                    v
# +--------------------------------------+
# |              Turn context            |   (Assembled per turn)
# |--------------------------------------|
# | Persona (system instruction)         |
# | Prior history                        |
# | Knowledge context block              |
# | "User request: ..." (+ attachment)   |
# +--------------------------------------+
#                    |
#                    v
#   [Chat model <-> tool servers loop]
