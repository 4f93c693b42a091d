from typing import NewType

# event class name -> handler class names (consumer groups) subscribed to it
SubscriptionRegistry = NewType("SubscriptionRegistry", dict[str, set[str]])
