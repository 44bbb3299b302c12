"""Server-side actions for the API tester: collections, saved requests and run history."""
