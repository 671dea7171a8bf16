"""Planning engine: classification, periodization, progression, safety and adaptation."""
