'''Additional state generators
IntegrableGenerator, AdditionalStateProvider and GeneratorRegistry definitions'''

from .errors import MissingAdditionalStateError, NameConflictError


class IntegrableGenerator:
    """
    Named provider of derivatives for one additional state block.

    The block is integrated alongside the main state. Its initial value is
    read from the initial spacecraft state under ``name``.

    Parameters
    ----------
    name : str
        Additional state name, unique within a propagator
    dimension : int, optional
        Declared block size. If None the size of the initial value is used.
    """

    def __init__(self, name, dimension=None):
        if not isinstance(name, str) or not name:
            raise ValueError(f"Generator name must be a non-empty string, got {name!r}")
        self._name = name
        self._dimension = None if dimension is None else int(dimension)

    @property
    def name(self):
        return self._name

    @property
    def dimension(self):
        """Declared block size, or None"""
        return self._dimension

    def init(self, initial_state, target):
        """Called once per integration leg, before the first derivative."""

    def compute_derivatives(self, state):
        """
        Rate of the block.

        Parameters
        ----------
        state : SpacecraftState
            Current state, including this generator's own block and the
            current primary derivatives

        Returns
        -------
        array-like
            Derivative with the same size as the block
        """
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name='{self._name}')"


class AdditionalStateProvider:
    """
    Named closed-form additional state, computed rather than integrated.

    Parameters
    ----------
    name : str
        Additional state name, unique within a propagator
    """

    def __init__(self, name):
        if not isinstance(name, str) or not name:
            raise ValueError(f"Provider name must be a non-empty string, got {name!r}")
        self._name = name

    @property
    def name(self):
        return self._name

    def init(self, initial_state, target):
        pass

    def get_additional_state(self, state):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name='{self._name}')"


class GeneratorRegistry:
    """
    Ordered registry of additional state providers and generators.

    Registration order of generators fixes their secondary equation index:
    the first generator is block 1, block 0 being the main state. A failed
    registration leaves the registry unchanged.
    """

    RESERVED_NAMES = frozenset(('orbit', 'attitude', 'mass', 'date'))

    def __init__(self):
        self._providers = []
        self._generators = []

    # ========== REGISTRATION ==========
    def add_provider(self, provider):
        """
        Register a closed-form additional state provider.

        Raises
        ------
        NameConflictError
            If the name is reserved or already managed
        """
        self._check_name(provider.name)
        self._providers.append(provider)

    def add_generator(self, generator):
        """
        Register an integrable generator.

        Raises
        ------
        NameConflictError
            If the name is reserved or already managed
        """
        self._check_name(generator.name)
        self._generators.append(generator)

    def _check_name(self, name):
        if name in self.RESERVED_NAMES or self.is_managed(name):
            raise NameConflictError(name)

    # ========== QUERIES ==========
    @property
    def providers(self):
        return tuple(self._providers)

    @property
    def generators(self):
        return tuple(self._generators)

    @property
    def generator_names(self):
        return tuple(g.name for g in self._generators)

    def is_managed(self, name):
        """True if ``name`` is computed by a provider or integrated by a generator."""
        return (any(p.name == name for p in self._providers) or
                any(g.name == name for g in self._generators))

    def managed_names(self):
        """Managed names, providers first then generators, in registration order."""
        return tuple(p.name for p in self._providers) + self.generator_names

    def index_of(self, name):
        """
        Secondary equation index of a generator (1 for the first one).

        Raises
        ------
        MissingAdditionalStateError
            If no generator has this name
        """
        for index, generator in enumerate(self._generators, start=1):
            if generator.name == name:
                return index
        raise MissingAdditionalStateError(name, f"No integrable generator named '{name}'")

    def __len__(self):
        return len(self._generators)

    def __repr__(self):
        return (f"GeneratorRegistry(providers={[p.name for p in self._providers]}, "
                f"generators={list(self.generator_names)})")
