#  techgen: build GDS3D techfiles from PDK layer properties and technology LEF.
#
#  See LICENSE for licence details.
