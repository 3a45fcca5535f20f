"""
DevHabit Backend — Route Handlers
===================================

One APIRouter per resource. The router tag doubles as the "controller" name
used by LinkService to resolve hypermedia links.

    habits.py       /habits                      tag "Habits"
    habit_tags.py   /habits/{habit_id}/tags      tag "HabitTags"
    tags.py         /tags                        tag "Tags"
    entries.py      /entries                     tag "Entries"
    health.py       /health                      tag "Health"
"""
