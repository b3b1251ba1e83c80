# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one part of the forum:
#
#   user_service        — accounts, profile changes, both deletion paths
#   post_service        — posts, tags, popular tags, cascading delete
#   comment_service     — comments and their soft-delete flag
#   upvote_service      — atomic upvote toggles shared by posts and comments
#   saved_list_service  — per-user saved posts, comments and tags
#   upload_service      — image files on local disk
#
# Database service functions accept an AsyncSession as their first
# argument so that the router layer controls the transaction boundary via
# the ``get_db`` dependency.
