"""Decision, stats and coaching logic for SmartSpend."""
