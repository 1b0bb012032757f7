"""web/ -- Browser-facing routes (OAuth login flow).

Layer rule: web/ imports from auth/ and core/, never from api/.
"""
