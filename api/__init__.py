"""HTTP gateway: client actions, Stripe webhook, health."""
