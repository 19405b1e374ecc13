"""Version 1 RPC routers."""
