"""Static copy for the marketing landing page."""

FEATURES = [
    {
        "title": "Fixtures in minutes",
        "body": "Create a tournament, add teams and schedule matches from one dashboard.",
    },
    {
        "title": "Live scoring",
        "body": "Update scores and log goals, cards and substitutions as they happen.",
    },
    {
        "title": "Automatic standings",
        "body": "Points tables and player leaderboards update after every result.",
    },
    {
        "title": "Team rosters",
        "body": "Managers keep squads, positions and jersey numbers in one place.",
    },
]

HOW_IT_WORKS = [
    "Create your tournament and pick a sport.",
    "Invite team managers to register their squads.",
    "Schedule matches and record results live.",
    "Share standings with players and fans.",
]

SOCIAL_PROOF = [
    "Riverside Sunday League",
    "Northside Cricket Club",
    "Metro Futsal",
    "Campus Intramurals",
    "Harbour Hockey Association",
]

FAQ = [
    {
        "question": "Which sports are supported?",
        "answer": "Any team sport with a score. Sports define squad sizes and substitutes.",
    },
    {
        "question": "How are standings calculated?",
        "answer": "Three points for a win, one for a draw, none for a loss. "
        "Ties break on goal difference, then goals scored.",
    },
    {
        "question": "Who can edit a tournament?",
        "answer": "Only the organiser who created it. Team managers edit their own rosters.",
    },
    {
        "question": "Do I need a separate account?",
        "answer": "No. Sign in with your existing identity provider account.",
    },
]
