"""Domain Layer: models, errors, events and the ports the other layers implement."""
