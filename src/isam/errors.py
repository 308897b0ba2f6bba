"""Exception types raised by elimination and Bayes tree maintenance.

`StructuralError` signals that a tree invariant would be (or has been)
violated, `NumericDegeneracy` that an elimination step cannot be carried out
on the given numbers. Both are fatal for the call that raised them.
"""


class StructuralError(RuntimeError):
    """A Bayes tree invariant does not hold.

    Raised when a conditional cannot be placed under a unique parent clique,
    when a key would become frontal in two cliques, when an orphan subtree
    cannot be reattached, or when an operation is attempted on a tree that
    was invalidated by an earlier failure.
    """


class NumericDegeneracy(ArithmeticError):
    """An elimination step is rank deficient or a constraint is infeasible."""


class UnknownKeyError(KeyError):
    """A query referenced a variable that is not part of the structure."""
