"""HomeMatch property semantic-matching engine."""
