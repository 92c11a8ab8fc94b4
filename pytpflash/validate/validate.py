#!/usr/bin/python3
# -*- coding: utf-8 -*-

"""
    pyTPFlash - Two-phase isothermal flash calculations
              Copyright (C) 2022, Mark Burgoyne

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    The GNU General Public License can be found in the LICENSE directory,
    and at  <https://www.gnu.org/licenses/>.

          Contact author at mark.w.burgoyne@gmail.com
"""

from pytpflash.classes import class_dic

def validate_methods(names, variables):
    """ Converts method names given as strings into their Enum members, e.g. 'vle' -> equil_type.VLE
        names: List of class_dic keys, one per variable
        variables: List of values, either Enum members or case-insensitive member names
        Returns a single value when one variable is passed, otherwise the converted list
    """
    variables = list(variables)
    for m, method in enumerate(names):
        if type(variables[m]) == str:
            try:
                variables[m] = class_dic[method][variables[m].upper()]
            except KeyError:
                options = [e.name for e in class_dic[method]]
                raise ValueError(f"An incorrect {method} method was specified: '{variables[m]}'. Use one of {options}")
        elif not isinstance(variables[m], class_dic[method]):
            raise ValueError(f"An incorrect {method} method was specified: {variables[m]!r}")
    if len(variables) == 1:
        return variables[0]
    else:
        return variables
