"""sci is a shameful CI.

A GitHub webhook that runs a build and a configured list of check commands
upon pull requests or pushes from collaborators, posts the output to a
secret gist and sets the commit status.
"""
