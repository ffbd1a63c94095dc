"""
Domain services used by the routers.
Each service takes an explicit SQLAlchemy session; none holds global state.
"""
