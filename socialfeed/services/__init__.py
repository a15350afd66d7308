# Services package.
#
# Each module exposes the resolver operations for one area:
#
#   auth_service:  signup, login, get_self
#   post_service: create_post, feeds, like / unlike
#
# Every operation takes the session factory as its first argument and
# runs its whole body through ``run_in_transaction``: one transaction and
# one fresh ``LoaderSet`` per call.  Writes are direct statements; reads
# go through the loaders.
