"""
bbl.commands — One class per bbl subcommand.

Every command exposes ``execute(args, state) -> State``: it parses its own
flags, drives its collaborators in a fixed order and returns the state the
dispatcher should persist. Failures are raised; a failure after the command
already changed the environment is raised as PartialStateError carrying the
state reached so far.
"""
