"""IoT Security Lab web application (FastAPI)."""
