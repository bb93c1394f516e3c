"""Conda environment packager: detection, runner and build step."""