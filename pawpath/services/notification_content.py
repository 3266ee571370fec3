"""
PawPath Notification Content

Friendly, short notification messages. No emojis.
Multiple variants for each notification type.
"""

import random
from typing import List


def pick(messages: List[str]) -> str:
    """Pick a random message from a list."""
    return random.choice(messages)


# =============================================================================
# NEW REQUEST NEARBY - Sent to walkers who can see a new request
# =============================================================================
NEW_REQUEST_TITLES = [
    "New Walk Nearby",
    "A Dog Needs a Walk",
    "Fresh Request",
]

NEW_REQUEST_BODIES = [
    "Someone in {zone} is looking for a walker.",
    "A new walk was posted in {zone}. Make an offer.",
    "There's a pup in {zone} waiting for you.",
]


# =============================================================================
# REQUEST CANCELLED - Sent to walkers who had offered
# =============================================================================
REQUEST_CANCELLED_TITLES = [
    "Request Cancelled",
    "Walk Called Off",
]

REQUEST_CANCELLED_BODIES = [
    "The owner cancelled a walk you offered on.",
    "A request you bid on is no longer available.",
]


# =============================================================================
# OFFER RECEIVED - Sent to the owner
# =============================================================================
OFFER_RECEIVED_TITLES = [
    "New Offer",
    "A Walker Is Interested",
    "Offer Incoming",
]

OFFER_RECEIVED_BODIES = [
    "A walker offered {price} for your walk.",
    "You have a new offer of {price}. Take a look.",
    "Someone wants to walk your dog for {price}.",
]


# =============================================================================
# OFFER ACCEPTED - Sent to the chosen walker
# =============================================================================
OFFER_ACCEPTED_TITLES = [
    "Offer Accepted",
    "You Got the Walk",
    "It's a Match",
]

OFFER_ACCEPTED_BODIES = [
    "The owner accepted your offer. Check the schedule.",
    "Your offer won. Time to plan the walk.",
    "You've been booked. Don't forget the leash.",
]


# =============================================================================
# WALK LIFECYCLE - Sent to the owner
# =============================================================================
WALKER_ARRIVED_TITLES = [
    "Your Walker Is Here",
    "Walker Arrived",
]

WALKER_ARRIVED_BODIES = [
    "Your walker is at the door.",
    "Time to hand over the leash.",
]

WALK_STARTED_TITLES = [
    "Walk Started",
    "Off They Go",
]

WALK_STARTED_BODIES = [
    "Your dog is out on a walk.",
    "The walk is under way. Photos may follow.",
]

WALK_COMPLETED_TITLES = [
    "Walk Completed",
    "Home Again",
    "How Was the Walk?",
]

WALK_COMPLETED_BODIES = [
    "The walk is done. Leave a review for your walker.",
    "Your dog is back. Tell us how it went.",
    "All done. A quick rating helps other owners.",
]


# =============================================================================
# WALK CANCELLED - Sent to the other party
# =============================================================================
WALK_CANCELLED_TITLES = [
    "Walk Cancelled",
    "Plans Changed",
]

WALK_CANCELLED_BODIES = [
    "The {party} cancelled the walk.",
    "This walk was cancelled by the {party}.",
]


# =============================================================================
# REVIEW RECEIVED - Sent to the walker
# =============================================================================
REVIEW_RECEIVED_TITLES = [
    "New Review",
    "You Got Rated",
]

REVIEW_RECEIVED_BODIES = [
    "An owner rated your walk {rating} out of 5.",
    "You received a {rating}-star review.",
]
