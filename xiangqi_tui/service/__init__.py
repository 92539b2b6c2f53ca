"""Command parsing and engine scheduling for the front end."""