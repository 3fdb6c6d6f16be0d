"""Remote task model, status classification and polling."""
