"""Campus Huddle: meeting recruitment, scheduling and attendance for student groups."""
