# Transport Layer
# FastAPI serving shell for the routing engine
