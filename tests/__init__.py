"""Test package for newsdesk-chat."""
from dotenv import find_dotenv, load_dotenv

# optional: a local .env may point the client at a dev backend
load_dotenv(find_dotenv(usecwd=True))
