"""Business services: profiles, similarity, feedback, freshness, facade."""
